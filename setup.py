"""
StateFlow - リアクティブな単一ストア状態管理エンジンのセットアップスクリプト
"""

import os

from setuptools import find_packages, setup


# README.mdの内容を読み込み
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), "README.md")
    if os.path.exists(readme_path):
        with open(readme_path, "r", encoding="utf-8") as f:
            return f.read()
    return ""


# requirements.txtから依存関係を読み込み
def read_requirements():
    requirements_path = os.path.join(os.path.dirname(__file__), "requirements.txt")
    if os.path.exists(requirements_path):
        with open(requirements_path, "r", encoding="utf-8") as f:
            lines = f.readlines()
        # コメント行と空行を除外
        requirements = []
        for line in lines:
            line = line.strip()
            if line and not line.startswith("#"):
                requirements.append(line)
        return requirements
    return []


setup(
    name="stateflow",
    version="0.1.0",
    author="StateFlow Team",
    description="型付き状態コンテナとアクションパイプラインによる単一ストア状態管理",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(include=["stateflow", "stateflow.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.10",
    install_requires=read_requirements(),
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "stateflow=stateflow.cli.main:main",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
