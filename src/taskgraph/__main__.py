from taskgraph.cli import main

main()
