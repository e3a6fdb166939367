from setuptools import setup, find_packages

setup(
    name             = 'mind-agenda',
    version          = '1.0.0',
    description      = 'mINd-AGENDa: chat & email to pending calendar events and reminders · Nous Loop Solutions',
    author           = 'Nous Loop Solutions',
    packages         = find_packages(exclude=['tests*']),
    install_requires = open('requirements.txt').read().splitlines(),
    extras_require   = {
        'test': ['pytest', 'httpx'],
    },
    entry_points     = {
        'console_scripts': [
            'agenda = agenda.cli:main',
        ],
    },
    python_requires  = '>=3.10',
    classifiers      = [
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
)
