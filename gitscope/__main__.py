from gitscope.main import main

raise SystemExit(main())
