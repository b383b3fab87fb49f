"""Models of systems for the linearizability checker."""