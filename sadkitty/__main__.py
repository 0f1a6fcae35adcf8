from sadkitty.runner import run

run()
