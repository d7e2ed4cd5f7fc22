'''
main.py -- runs a drawing script in the voxel worker and shows the result

usage: python main.py [SCRIPT] [GRID_SIZE] [--headless] [--challenge TARGET_SCRIPT]

Without SCRIPT a built-in sphere script is used. With --challenge the
worker compares SCRIPT against TARGET_SCRIPT and prints the similarity.
'''

import sys

import logutil
import worker

DEFAULT_SCRIPT = '''
def draw(X, Y, Z, GRID_SIZE):
    c = (GRID_SIZE - 1) / 2
    d = sqrt((X - c)**2 + (Y - c)**2 + (Z - c)**2)
    if d > GRID_SIZE / 2:
        return False
    return (int(255 * X / GRID_SIZE), int(255 * Y / GRID_SIZE), 200)
'''

PROXY_ID = 'main-canvas'
WIDTH = 800
HEIGHT = 600


def read_source(path):
    with open(path) as f:
        return f.read()


def wait_for(pipe, types, process):
    """ Log worker messages until one of `types` (or an error) arrives. """
    while process.is_alive() or pipe.poll():
        if not pipe.poll(0.5):
            continue
        msg, data = pipe.recv()
        if msg == 'warning':
            logutil.log("HOST", data['message'], level="WARN")
        elif msg == 'error':
            logutil.log("HOST", data['message'], level="ERROR")
            return msg, data
        else:
            logutil.log("HOST", f"worker replied {msg} {data}")
        if msg in types:
            return msg, data
    return None, None


def parse_args(args):
    options = {'script': None, 'grid_size': 16, 'headless': False, 'challenge': None}
    rest = []
    i = 0
    while i < len(args):
        arg = args[i]
        if arg == '--headless':
            options['headless'] = True
        elif arg == '--challenge' and i + 1 < len(args):
            options['challenge'] = args[i + 1]
            i += 1
        else:
            rest.append(arg)
        i += 1
    if rest:
        options['script'] = rest[0]
    if len(rest) > 1:
        options['grid_size'] = int(rest[1])
    return options


def main():
    options = parse_args(sys.argv[1:])
    source = read_source(options['script']) if options['script'] else DEFAULT_SCRIPT
    headless = options['headless']

    pipe, process = worker.start_worker()
    if wait_for(pipe, ('ready',), process)[0] != 'ready':
        return 1
    try:
        pipe.send(('makeProxy', {'id': PROXY_ID}))
        pipe.send(('start', {
            'canvas': 'headless' if headless else 'window',
            'width': WIDTH,
            'height': HEIGHT,
            'gridSize': options['grid_size'],
            'canvasId': PROXY_ID,
            'enableOrbitControls': not headless,
        }))
        if wait_for(pipe, ('init',), process)[0] != 'init':
            return 1

        if options['challenge']:
            pipe.send(('evaluateChallenge', {
                'targetCode': read_source(options['challenge']),
                'userCode': source,
            }))
            msg, data = wait_for(pipe, ('challengeResult',), process)
            if msg != 'challengeResult' or data.get('status') != 'success':
                return 1
            print(f"similarity: {data['similarity']:.4f}")
            return 0

        pipe.send(('runPythonCode', {'code': source, 'gridSize': options['grid_size']}))
        if wait_for(pipe, ('runPythonCode',), process)[0] != 'runPythonCode':
            return 1
        if headless:
            return 0
        logutil.log("HOST", "showing result, press ctrl-c to quit")
        try:
            wait_for(pipe, ('terminate',), process)
        except KeyboardInterrupt:
            logutil.log("HOST", "received keyboard interrupt", level="WARN")
        return 0
    finally:
        if process.is_alive():
            pipe.send(('terminate', {}))
            wait_for(pipe, ('terminate',), process)
        process.join(timeout=2.0)


if __name__ == '__main__':
    sys.exit(main())
