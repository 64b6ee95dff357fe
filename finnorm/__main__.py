"""Allow ``python -m finnorm``."""

from finnorm.main import main

main()
