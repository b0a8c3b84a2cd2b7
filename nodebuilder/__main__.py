from nodebuilder.cli import main

raise SystemExit(main())
