from kmerfetch.cli import main

raise SystemExit(main())
