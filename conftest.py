collect_ignore = ["setup.py", "scripts"]

pytest_plugins = ['irccore.fixtures']
