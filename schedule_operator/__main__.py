from schedule_operator.api.main import main

main()
