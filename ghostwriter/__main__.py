from ghostwriter.app import main

main()
