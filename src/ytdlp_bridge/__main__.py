"""ytdlp-bridge 入口点。

支持: python -m ytdlp_bridge
"""

from .app import main

if __name__ == "__main__":
    main()
