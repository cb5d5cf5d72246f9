from dsm_cert_sync.main import main

main()
