from jspyc.cli import main

raise SystemExit(main())
