"""Entry point for ``python -m narrative_director <command>``.

Commands:
    validate - validate the director config and storylet library
    simulate - run the director for N ticks against a static world file
    snapshot - summarize a saved director snapshot
"""
from narrative_director.cli import main

if __name__ == "__main__":
    main()
