from minimal_server.main import main

main()
