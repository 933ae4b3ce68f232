from vibenodes.cli import main

main()
