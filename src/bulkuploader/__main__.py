import sys
from bulkuploader.cli import main

sys.exit(main())
