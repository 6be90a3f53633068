import sys


def main(workflow_name: str, argv: list) -> int:
    """Main entry point for running workflows."""
    if workflow_name == "harvest":
        from workflows.harvest_cities import main as harvest_main
        return harvest_main(argv)

    print(f"Unknown workflow: {workflow_name}")
    return 1


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python main.py <workflow_name> [args...]")
        sys.exit(1)

    workflow_name = sys.argv[1]
    sys.exit(main(workflow_name, sys.argv[2:]))
