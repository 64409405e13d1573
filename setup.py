from setuptools import setup, find_packages

setup(
    name='release-mirror',
    version='0.1.0',
    description='Mirror the latest GitHub release into a local cache and serve it over HTTP',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.10',
    install_requires=[
        'requests',
        'PyYAML',
        'urllib3',
        'rich',
        'platformdirs',
        'Flask',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-mock',
        ],
    },
    entry_points={
        'console_scripts': [
            'release-mirror=release_mirror.cli:main',
        ],
    },
)
