from ddsearch.cli import main

main()
