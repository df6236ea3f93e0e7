#!/usr/bin/env python3
"""部署启动脚本

读取配置和平台注入的PORT环境变量后启动FastAPI应用
"""

import os
import sys
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))


def main():
    """启动FastAPI应用

    端口优先使用平台注入的PORT环境变量，其次使用配置中的端口
    """
    import uvicorn
    from loguru import logger

    from app.core.config import settings
    from app.core.logging import setup_logging

    setup_logging(settings)

    port = int(os.getenv("PORT", settings.port))
    logger.info(f"启动服务: {settings.app_name} v{settings.app_version} 端口 {port}")

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=port,
        # 生产环境不使用reload
        reload=False,
        workers=1,
        log_level="debug" if settings.debug else "info",
        access_log=True
    )


if __name__ == "__main__":
    main()
