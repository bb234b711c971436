from lightkeeper.main import main

main()
