from setuptools import find_packages, setup

setup(
    name="testbot",
    version="0.1.0",
    packages=find_packages(
        include=[
            "testbot_common",
            "testbot_common.*",
            "testbot_runner",
            "testbot_runner.*",
            "testbot_notify",
            "testbot_notify.*",
            "testbot_server",
            "testbot_server.*",
            "testbot_admin",
            "testbot_admin.*",
        ]
    ),
    install_requires=[
        "requests>=2.31.0",
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
        "click>=8.1.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-xdist>=3.3.0",
            "httpx>=0.25.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "testbot-server=testbot_server.__main__:main",
            "testbot-admin=testbot_admin.cli:cli",
        ],
    },
    python_requires=">=3.10",
)
