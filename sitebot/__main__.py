from sitebot.main import main

main()
