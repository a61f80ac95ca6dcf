from setuptools import find_packages, setup

setup(
    name='avatarslots',
    version='0.1.0',
    description='Slot configuration and Live2D model provisioning for desktop characters',
    package_dir={'': 'src'},
    packages=find_packages('src'),
    python_requires='>=3.10',
    install_requires=[
        'aiohttp',
        'platformdirs',
        'PyYAML',
        'rich',
    ],
    extras_require={
        'test': [
            'pytest<9',
            'pytest-asyncio',
            'pytest-mock',
        ],
    },
    entry_points={
        'console_scripts': [
            'avatarslots=avatarslots.cli:main',
        ],
    },
)
