import os
import re
from setuptools import setup, find_packages


# Get version from pretix_redsys/apps.py without importing the package
def get_version():
    with open(os.path.join(os.path.dirname(__file__), 'pretix_redsys', 'apps.py'), encoding='utf-8') as f:
        content = f.read()
        match = re.search(r"__version__\s*=\s*'([^']+)'", content)
        if match:
            return match.group(1)
        raise RuntimeError("Unable to find version string.")

try:
    with open(os.path.join(os.path.dirname(__file__), 'README.md'), encoding='utf-8') as f:
        long_description = f.read()
except OSError:
    long_description = ''


setup(
    name='pretix-redsys',
    version=get_version(),
    description='Redsys payment provider for pretix',
    long_description=long_description,
    long_description_content_type='text/markdown',
    author='Jorge Gomes',
    author_email='jorge.gomes211@gmail.com',
    license='Proprietary',
    install_requires=[
        'Django',
        'pycryptodome>=3.15.0',
    ],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    packages=find_packages(exclude=['tests', 'tests.*']),
    include_package_data=True,

    entry_points="""
[pretix.plugin]
pretix_redsys=pretix_redsys:PluginApp.PretixPluginMeta
""",
)
