# ---
# jupyter:
#   jupytext:
#     text_representation:
#       extension: .py
#       format_name: light
#       format_version: '1.5'
#       jupytext_version: 1.16.4
#   kernelspec:
#     display_name: Python (piframe-venv)
#     language: python
#     name: piframe-venv
# ---

import gzip
import logging
import tempfile
import threading
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import requests

from piframe.daemon.http_server import ControlServer
from piframe.daemon.quit_reason import QuitReason
from piframe.library.frame_config import FrameConfig
from piframe.providers.screens import NullScreen

logging.getLogger("piframe").setLevel(logging.CRITICAL)

TIMEOUT = 5


class FakeFrame:
    """Just enough of a FrameController for the routes."""

    def __init__(self):
        self.screen = NullScreen()
        self.config = FrameConfig(photo_directory='/photos')
        self.current_picture_location = ''
        self.picture_count = 0
        self.is_running = True
        self.toggle_next_photo = MagicMock()

    def get_current_config(self):
        return self.config.copy()

    def configure(self, new_config):
        new_config.validate()
        self.config = new_config.copy()


class ControlServerTestCase(unittest.TestCase):

    def setUp(self):
        self.frame = FakeFrame()
        self.server = ControlServer(self.frame, port=0, host='127.0.0.1')
        self.server.start()
        self.base_url = f'http://127.0.0.1:{self.server.server_port}'

    def tearDown(self):
        self.server.dispose()

    def get(self, path, **kwargs):
        return requests.get(self.base_url + path, timeout=TIMEOUT, **kwargs)

    def post(self, path, **kwargs):
        return requests.post(self.base_url + path, timeout=TIMEOUT, **kwargs)


# -------------------------------------------------------------------
# 1) PAGES
# -------------------------------------------------------------------
class TestPages(ControlServerTestCase):

    def test_index(self):
        for path in ('/', '/index.html', '/INDEX.HTML'):
            response = self.get(path)
            self.assertEqual(response.status_code, 200, path)
            self.assertIn('Pi Picture Frame Control', response.text)

    def test_unknown_path(self):
        response = self.get('/nope.html')
        self.assertEqual(response.status_code, 404)
        self.assertIn('404', response.text)

    def test_unknown_path_any_method(self):
        for method in ('PUT', 'DELETE', 'PATCH', 'OPTIONS'):
            response = requests.request(method, self.base_url + '/nowhere.html', timeout=TIMEOUT)
            self.assertEqual(response.status_code, 404, method)
            self.assertIn('404', response.text, method)

        response = requests.head(self.base_url + '/nowhere.html', timeout=TIMEOUT)
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.content, b'')

    def test_head_has_no_body(self):
        response = requests.head(self.base_url + '/', timeout=TIMEOUT)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b'')
        self.assertEqual(self.get('/').status_code, 200)

    def test_credits(self):
        response = self.get('/credits.txt')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers['Content-Type'].startswith('text/plain'))
        self.assertIn('pqiv', response.text)
        self.assertIn('/credits.txt', self.get('/about.html').text)

    def test_other_pages(self):
        for path in ('/about.html', '/space.html', '/full.html', '/settings.html', '/turnoff.html'):
            self.assertEqual(self.get(path).status_code, 200, path)

    def test_change_picture(self):
        self.get('/changepicture.html')
        self.frame.toggle_next_photo.assert_not_called()

        response = self.post('/changepicture.html')
        self.assertEqual(response.status_code, 200)
        self.frame.toggle_next_photo.assert_called_once_with()

    def test_sleep_toggles_screen(self):
        response = self.get('/sleep.html')
        self.assertIn('Must POST request to toggle screen.', response.text)
        self.assertTrue(self.frame.screen.is_on)

        self.post('/sleep.html')
        self.assertFalse(self.frame.screen.is_on)
        response = self.post('/turnoff.html')
        self.assertTrue(self.frame.screen.is_on)
        self.assertIn('Turn Screen Off', response.text)

    def test_route_exception_becomes_500(self):
        self.frame.toggle_next_photo.side_effect = RuntimeError('renderer exploded')
        response = self.post('/changepicture.html')
        self.assertEqual(response.status_code, 500)
        self.assertIn('renderer exploded', response.text)

        # the server keeps serving
        self.assertEqual(self.get('/').status_code, 200)
        self.assertEqual(self.server.quit_reason, QuitReason.NONE)

    def test_static_assets(self):
        response = self.get('/css/style.css')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.headers['Content-Type'].startswith('text/css'))

        response = self.get('/js/frame.js?t=1')
        self.assertEqual(response.status_code, 200)

        self.assertEqual(self.get('/css/missing.css').status_code, 404)
        self.assertEqual(self.get('/css/../secret.css').status_code, 404)


# -------------------------------------------------------------------
# 2) POWER ACTIONS AND QUIT REASONS
# -------------------------------------------------------------------
class TestQuitRequests(ControlServerTestCase):

    def test_get_does_not_quit(self):
        expected = {
            '/restart.html': 'Must POST request to restart system.',
            '/shutdown.html': 'Must POST request to shutdown system.',
            '/linux.html': 'Must POST request to exit to desktop.',
        }
        for path, message in expected.items():
            response = self.get(path)
            self.assertEqual(response.status_code, 200)
            self.assertIn(message, response.text)

        self.assertEqual(self.server.quit_reason, QuitReason.NONE)
        self.assertEqual(self.server.wait_for_quit_event(timeout=0.1), QuitReason.NONE)

    def test_post_shutdown(self):
        response = self.post('/shutdown.html')
        self.assertEqual(response.status_code, 200)
        self.assertIn('shutdown sequence', response.text)
        self.assertEqual(self.server.wait_for_quit_event(timeout=TIMEOUT), QuitReason.SHUTTING_DOWN)

    def test_post_each_action(self):
        for path, reason in (('/restart.html', QuitReason.RESTARTING),
                             ('/linux.html', QuitReason.EXIT_TO_DESKTOP)):
            server = ControlServer(self.frame, port=0, host='127.0.0.1')
            server.start()
            try:
                requests.post(f'http://127.0.0.1:{server.server_port}{path}', timeout=TIMEOUT)
                self.assertEqual(server.wait_for_quit_event(timeout=TIMEOUT), reason)
            finally:
                server.dispose()

    def test_first_reason_wins(self):
        self.post('/restart.html')
        self.post('/linux.html')
        self.assertEqual(self.server.quit_reason, QuitReason.RESTARTING)

        self.server.dispose()
        self.assertEqual(self.server.quit_reason, QuitReason.RESTARTING)

    def test_request_quit_none_rejected(self):
        with self.assertRaises(ValueError):
            self.server.request_quit(QuitReason.NONE)
        self.assertTrue(self.server.request_quit(QuitReason.SHUTTING_DOWN))
        self.assertFalse(self.server.request_quit(QuitReason.RESTARTING))

    def test_concurrent_quit_requests(self):
        reasons = [QuitReason.SHUTTING_DOWN, QuitReason.RESTARTING, QuitReason.EXIT_TO_DESKTOP] * 4
        barrier = threading.Barrier(len(reasons))
        results = [None] * len(reasons)

        def request(index):
            barrier.wait()
            results[index] = self.server.request_quit(reasons[index])

        threads = [threading.Thread(target=request, args=(i,)) for i in range(len(reasons))]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(TIMEOUT)

        self.assertEqual(results.count(True), 1)
        winner = reasons[results.index(True)]
        self.assertEqual(self.server.quit_reason, winner)
        self.assertEqual(self.server.wait_for_quit_event(timeout=0), winner)

        self.server.dispose()
        self.assertEqual(self.server.quit_reason, winner)


# -------------------------------------------------------------------
# 3) LIFECYCLE
# -------------------------------------------------------------------
class TestLifecycle(ControlServerTestCase):

    def test_dispose(self):
        self.assertTrue(self.server.is_listening)
        self.server.dispose()
        self.assertFalse(self.server.is_listening)
        self.assertEqual(self.server.quit_reason, QuitReason.DISPOSED)
        self.assertEqual(self.server.wait_for_quit_event(timeout=TIMEOUT), QuitReason.DISPOSED)

        with self.assertRaises(requests.ConnectionError):
            self.get('/')

    def test_dispose_twice(self):
        self.server.dispose()
        self.server.dispose()
        self.assertEqual(self.server.quit_reason, QuitReason.DISPOSED)

    def test_start_after_dispose_is_noop(self):
        self.server.dispose()
        self.server.start()
        self.assertFalse(self.server.is_listening)

    def test_start_twice(self):
        port = self.server.server_port
        self.server.start()
        self.assertEqual(self.server.server_port, port)

    def test_socket_failure_is_fatal(self):
        # the listener dies underneath a running accept loop
        self.server.httpd.socket.close()
        self.assertEqual(self.server.wait_for_quit_event(timeout=TIMEOUT), QuitReason.FATAL_ERROR)
        self.assertFalse(self.server.is_listening)

        self.server.dispose()
        self.assertEqual(self.server.quit_reason, QuitReason.FATAL_ERROR)

    def test_requests_logged_to_injected_logger(self):
        sink = logging.getLogger('test.frame.http')
        server = ControlServer(self.frame, port=0, host='127.0.0.1', log=sink)
        with self.assertLogs(sink, level='INFO') as logs:
            server.start()
            try:
                requests.get(f'http://127.0.0.1:{server.server_port}/about.html', timeout=TIMEOUT)
                requests.get(f'http://127.0.0.1:{server.server_port}/nowhere.html', timeout=TIMEOUT)
            finally:
                server.dispose()

        output = '\n'.join(logs.output)
        self.assertIn('GET from:', output)
        self.assertIn('/about.html', output)
        self.assertIn('/nowhere.html', output)


# -------------------------------------------------------------------
# 4) SETTINGS, PICTURES AND JSON
# -------------------------------------------------------------------
class TestSettings(ControlServerTestCase):

    def test_save_settings(self):
        form = {
            'photo_directory': '/srv/pictures',
            'change_interval': '5',
            'refresh_interval': '2',
            'brightness': '40',
            'awake_hour': '7', 'awake_minute': '30',
            'sleep_hour': '-1', 'sleep_minute': '-1',
        }
        response = self.post('/settings.html', data=form)
        self.assertEqual(response.status_code, 200)
        self.assertIn('Settings saved.', response.text)

        config = self.frame.config
        self.assertEqual(config.photo_directory, '/srv/pictures')
        self.assertEqual(config.photo_change_interval, 300)
        self.assertEqual(config.photo_refresh_interval, 7200)
        self.assertEqual(config.brightness, 40)
        self.assertEqual((config.awake_time.hour, config.awake_time.minute), (7, 30))
        self.assertIsNone(config.sleep_time)

    def test_unparseable_settings(self):
        response = self.post('/settings.html', data={'brightness': 'bright'})
        self.assertIn('Settings were not saved.', response.text)
        self.assertEqual(self.frame.config.brightness, 75)

    def test_invalid_settings(self):
        response = self.post('/settings.html', data={'brightness': '150', 'change_interval': '0'})
        self.assertIn('Settings were not saved.', response.text)
        self.assertIn('brightness can not be more than 100', response.text)
        self.assertEqual(self.frame.config.brightness, 75)
        self.assertEqual(self.frame.config.photo_change_interval, 60)


class TestCurrentPicture(ControlServerTestCase):

    def test_no_picture(self):
        self.assertEqual(self.get('/current.jpg').status_code, 404)

    def test_picture_served(self):
        with tempfile.TemporaryDirectory() as tmp:
            picture = Path(tmp) / 'sunset.jpg'
            contents = b'\xff\xd8\xff' + b'not really a jpeg' * 20
            picture.write_bytes(contents)
            self.frame.current_picture_location = str(picture)

            response = self.get('/current.jpg', headers={'Accept-Encoding': 'gzip'})
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.headers['Content-Encoding'], 'gzip')
            self.assertEqual(response.headers['Content-Type'], 'image/jpeg')
            self.assertEqual(response.content, contents)

            response = self.get('/current.jpg', headers={'Accept-Encoding': 'identity'}, stream=True)
            self.assertNotIn('Content-Encoding', response.headers)
            self.assertEqual(response.raw.read(), contents)

            raw = requests.get(self.base_url + '/current.jpg', timeout=TIMEOUT, stream=True,
                               headers={'Accept-Encoding': 'gzip'}).raw.read(decode_content=False)
            self.assertEqual(gzip.decompress(raw), contents)


class TestJsonRoutes(ControlServerTestCase):

    def test_status(self):
        data = self.get('/status').json()
        self.assertEqual(data['quit_reason'], 'None')
        self.assertTrue(data['running'])
        self.assertEqual(data['screen'], {'is_on': True, 'brightness': 100})

    def test_config(self):
        data = self.get('/config').json()
        self.assertEqual(data['data']['photo_directory'], '/photos')

    def test_help_lists_routes(self):
        data = self.get('/help').json()
        for path in ('/', '/settings.html', '/shutdown.html', '/current.jpg', '*.css'):
            self.assertIn(path, data)


if __name__ == '__main__':
    unittest.main()
