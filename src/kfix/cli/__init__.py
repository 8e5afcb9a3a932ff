"""
CLI Subpackage.

Contains the application entry-point and command handler for the command-line interface.

Modules:
    - ``__main__``: The argparse definition, usage text and exit codes.
    - ``handlers/fix``: Runs the fix pipeline over the requested packages.
"""
