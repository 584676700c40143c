import sys

from fit2bsky.sync import main

sys.exit(main())
