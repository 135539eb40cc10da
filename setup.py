from setuptools import setup

version = '0.1'

with open("README.md", "r", encoding="utf-8") as f:
    long_descr = f.read()

setup(
    name='pymixingstation',
    packages=['pymixingstation'],
    version=version,
    license='Apache 2.0',
    description='Control mixers through the Mixing Station app',
    long_description=long_descr,
    long_description_content_type='text/markdown',
    python_requires='>=3.10',
    keywords=['Mixing Station', 'Mixer', 'Websocket'],
    install_requires=[
        "aiohttp>=3.8.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
        ],
    },
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python :: 3.10'
    ],
)
