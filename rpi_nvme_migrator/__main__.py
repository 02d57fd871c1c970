import sys

from rpi_nvme_migrator.main import main


sys.exit(main())
