from bubblescape.cli import main

main()
