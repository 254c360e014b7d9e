import sys

from guildgate.cli import main

sys.exit(main())
