"""Package entry point for ``python -m watson_transcriber``.

WHY: Users run the transcriber as ``python -m watson_transcriber input.wav``
for CLI mode, or ``python -m watson_transcriber --serve`` for the HTTP API.

RULES:
- ``--serve`` starts the FastAPI server via uvicorn
- Without ``--serve``, falls through to the CLI
"""

import sys

if __name__ == "__main__":
    if "--serve" in sys.argv:
        from watson_transcriber.server.app import run_api
        run_api()
    else:
        from watson_transcriber.cli import main
        main()
