from setuptools import find_packages
from setuptools import setup

version = '0.1.0'

install_requires = [
    'cryptography>=43.0.0',
    # Josepy 2+ may introduce backward incompatible changes.
    'josepy>=1.13.0, <2',
    'pyrfc3339',
    'requests>=2.20.0',
]

test_extras = [
    'pytest',
    'pytest-xdist',
]

setup(
    name='acmekit',
    version=version,
    description='ACME (RFC 8555) client resources and signed transport',
    license='Apache License 2.0',
    python_requires='>=3.9',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Programming Language :: Python :: 3.13',
        'Topic :: Internet :: WWW/HTTP',
        'Topic :: Security',
    ],

    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    package_data={'acmekit._internal.tests': ['testdata/*.json']},
    include_package_data=True,
    install_requires=install_requires,
    extras_require={
        'test': test_extras,
    },
)
