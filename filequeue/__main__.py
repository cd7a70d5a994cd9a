import sys

from filequeue.cli.main import main

sys.exit(main())
