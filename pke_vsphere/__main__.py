import sys

from pke_vsphere.cli import main

sys.exit(main())
