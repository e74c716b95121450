from cask.cli import main

main()
