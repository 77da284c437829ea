from netcheck.app import main

main()
