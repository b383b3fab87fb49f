"""Example MapReduce applications: word count, an inverted index and timing checks."""