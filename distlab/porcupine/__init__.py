"""A linearizability checker for concurrent histories."""