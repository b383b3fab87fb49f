"""A MapReduce master and worker."""