"""python -m prestigelayer.mcp <layer_module>"""

from prestigelayer.mcp.server import main

if __name__ == "__main__":
    main()
