from setuptools import setup, find_packages

setup(
	name='dyldsymbolicator',
	version='1.0.0',
	description='Find the image and symbol for addresses in Apple\'s Dyld Shared Cache',
	python_requires='>=3.8',
	install_requires=['progressbar2', 'capstone>=5.0,<6'],
	extras_require={
		'test': ['pytest']
	},
	packages=find_packages(
		where='src'
	),
	package_dir={"": "src"},
	classifiers=[
		'Programming Language :: Python :: 3',
		'License :: OSI Approved :: MIT License',
		'Operating System :: OS Independent'
	],
	entry_points={'console_scripts': [
		'dyldsym=DyldSymbolicator.cli:main'
	]}
)
