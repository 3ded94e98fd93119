"""Allow ``python -m pumpswap_stream``."""

from pumpswap_stream.main import main

main()
