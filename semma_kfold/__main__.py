import sys

from semma_kfold.workflow import main

sys.exit(main())
