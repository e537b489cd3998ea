from merge_check.cli import main

main()
