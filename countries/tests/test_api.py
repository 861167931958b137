from django.test import TestCase, override_settings
from rest_framework.test import APIClient
from rest_framework import status
from unittest import mock
from countries.models import Country
import requests
import shutil
import tempfile
import os


class FakeResp:
    def __init__(self, json_data, status=200):
        self._json = json_data
        self.status_code = status

    def json(self):
        return self._json

    def raise_for_status(self):
        if not (200 <= self.status_code < 300):
            raise requests.exceptions.HTTPError(f'{self.status_code} error')


class CountriesAPITestCase(TestCase):
    """Tests for the countries API endpoints.

    Covered endpoints:
    - POST /countries/refresh
    - GET  /countries
    - GET  /countries/<name>
    - DELETE /countries/<name>
    - GET /status
    - GET /countries/image
    - GET /countries/summary
    """

    def setUp(self):
        self.client = APIClient()
        self.cache_dir = tempfile.mkdtemp()
        self.settings_override = override_settings(SUMMARY_CACHE_DIR=self.cache_dir)
        self.settings_override.enable()

        Country.objects.create(
            name="Testland",
            capital="Testville",
            region="Africa",
            population=1000,
            currency_code="TST",
            exchange_rate=2.0,
            estimated_gdp=500.0,
            flag_url="http://example.com/flag.png",
        )

        Country.objects.create(
            name="Samplestan",
            capital="Sample City",
            region="Asia",
            population=2000,
            currency_code="SMP",
            exchange_rate=4.0,
            estimated_gdp=1000.0,
            flag_url="http://example.com/flag2.png",
        )

        Country.objects.create(
            name="Nocoinia",
            region="Africa",
            population=300,
            estimated_gdp=0,
        )

    def tearDown(self):
        self.settings_override.disable()
        shutil.rmtree(self.cache_dir, ignore_errors=True)

    def test_list_countries_basic(self):
        resp = self.client.get('/countries')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertIsInstance(resp.json(), list)
        self.assertEqual(len(resp.json()), 3)
        self.assertEqual(
            set(resp.json()[0].keys()),
            {'id', 'name', 'capital', 'region', 'population', 'currency_code',
             'exchange_rate', 'estimated_gdp', 'flag_url', 'last_refreshed_at'},
        )

    def test_filter_by_region_is_exact(self):
        resp = self.client.get('/countries', {'region': 'Africa'})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        names = sorted(c['name'] for c in resp.json())
        self.assertEqual(names, ['Nocoinia', 'Testland'])
        self.assertTrue(all(c['region'] == 'Africa' for c in resp.json()))

        # no case folding, no partial matching
        self.assertEqual(self.client.get('/countries', {'region': 'africa'}).json(), [])
        self.assertEqual(self.client.get('/countries', {'region': 'Afr'}).json(), [])

    def test_filter_by_currency(self):
        resp = self.client.get('/countries', {'currency': 'TST'})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.json()
        self.assertEqual(len(data), 1)
        self.assertEqual(data[0]['name'], 'Testland')

        resp = self.client.get('/countries', {'currency': 'tst'})
        self.assertEqual(resp.json(), [])

    def test_sort_by_gdp_desc(self):
        resp = self.client.get('/countries', {'sort': 'gdp_desc'})
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.json()
        self.assertEqual([c['name'] for c in data], ['Samplestan', 'Testland', 'Nocoinia'])
        gdps = [float(c['estimated_gdp']) for c in data]
        self.assertEqual(gdps, sorted(gdps, reverse=True))

    def test_filter_and_sort_combined(self):
        resp = self.client.get('/countries', {'region': 'Africa', 'sort': 'gdp_desc'})
        self.assertEqual([c['name'] for c in resp.json()], ['Testland', 'Nocoinia'])

    def test_get_country_success_and_not_found(self):
        resp = self.client.get('/countries/Testland')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()['name'], 'Testland')
        self.assertEqual(resp.json()['currency_code'], 'TST')

        resp = self.client.get('/countries/NoSuchCountry')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn('error', resp.json())

        # exact name only
        resp = self.client.get('/countries/testland')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

    def test_get_country_storage_error(self):
        with mock.patch('countries.store.CountryStore.find_by_name') as find:
            from countries.exceptions import StorageError
            find.side_effect = StorageError('db down')
            resp = self.client.get('/countries/Testland')
        self.assertEqual(resp.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertIn('error', resp.json())

    def test_delete_country_success_and_not_found(self):
        resp = self.client.delete('/countries/Samplestan')
        self.assertEqual(resp.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(Country.objects.count(), 2)

        # subsequent delete should return 404 and leave the count alone
        resp = self.client.delete('/countries/Samplestan')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn('error', resp.json())
        self.assertEqual(Country.objects.count(), 2)

    def test_status_view(self):
        resp = self.client.get('/status')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        data = resp.json()
        self.assertEqual(data['total_countries'], 3)
        self.assertIsNotNone(data['last_refreshed_at'])

    def test_status_view_empty_store(self):
        Country.objects.all().delete()
        resp = self.client.get('/status')
        self.assertEqual(resp.json(), {'total_countries': 0, 'last_refreshed_at': None})

    def test_get_summary_image_not_found_and_found(self):
        resp = self.client.get('/countries/image')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.json(), {'error': 'Summary image not found'})

        with open(os.path.join(self.cache_dir, 'summary.png'), 'wb') as f:
            f.write(b'PNGDATA')

        resp = self.client.get('/countries/image')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp['Content-Type'], 'image/png')
        self.assertEqual(b''.join(resp.streaming_content), b'PNGDATA')

    def test_image_route_is_not_a_country_lookup(self):
        Country.objects.create(name='image', population=1)
        resp = self.client.get('/countries/image')
        # still the summary route, not the country called "image"
        self.assertEqual(resp.json(), {'error': 'Summary image not found'})

    def test_get_summary_json(self):
        resp = self.client.get('/countries/summary')
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)

        with open(os.path.join(self.cache_dir, 'summary.json'), 'w') as f:
            f.write('{"total_countries": 3, "top_countries": [], "generated_at": "x"}')

        resp = self.client.get('/countries/summary')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()['total_countries'], 3)

    def test_get_summary_json_corrupt(self):
        with open(os.path.join(self.cache_dir, 'summary.json'), 'w') as f:
            f.write('{"total_countries": 3,')

        resp = self.client.get('/countries/summary')
        self.assertEqual(resp.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(resp.json(), {'error': 'Internal server error'})

    @mock.patch('countries.sources.requests.get')
    def test_refresh_countries_success(self, mock_get):
        def side_effect(url, timeout=10):
            if 'restcountries' in url:
                return FakeResp([
                    {
                        'name': 'Mockland',
                        'capital': 'Mock City',
                        'region': 'Mock Region',
                        'population': 500,
                        'flag': 'http://example.com/flag.png',
                        'currencies': [{'code': 'USD'}]
                    },
                    {
                        'name': 'Testland',
                        'region': 'Africa',
                        'population': 1200,
                        'currencies': [{'code': 'XXX'}]
                    },
                ])
            return FakeResp({'result': 'success', 'rates': {'USD': 1.0}})

        mock_get.side_effect = side_effect
        testland_id = Country.objects.get(name='Testland').id

        resp = self.client.post('/countries/refresh')
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.json()['message'], 'Countries refreshed successfully')
        self.assertEqual(resp.json()['total_committed'], 2)

        mockland = Country.objects.get(name='Mockland')
        self.assertEqual(mockland.exchange_rate, 1.0)
        self.assertGreaterEqual(mockland.estimated_gdp, 500 * 1000)
        self.assertLess(mockland.estimated_gdp, 500 * 2000)

        testland = Country.objects.get(name='Testland')
        self.assertEqual(testland.id, testland_id)
        self.assertEqual(testland.population, 1200)
        self.assertEqual(testland.currency_code, 'XXX')
        self.assertIsNone(testland.exchange_rate)
        self.assertIsNone(testland.capital)
        self.assertEqual(testland.estimated_gdp, 0)

        self.assertEqual(Country.objects.count(), 4)
        self.assertEqual(self.client.get('/countries/image').status_code, status.HTTP_200_OK)
        self.assertEqual(self.client.get('/countries/summary').json()['total_countries'], 4)

    @mock.patch('countries.sources.requests.get')
    def test_refresh_countries_external_failure(self, mock_get):
        mock_get.side_effect = requests.exceptions.RequestException('network error')
        before = list(Country.objects.order_by('name').values())

        resp = self.client.post('/countries/refresh')
        self.assertEqual(resp.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(resp.json()['error'], 'External data source unavailable')
        self.assertIn('Could not fetch data from https://', resp.json()['details'])
        self.assertEqual(list(Country.objects.order_by('name').values()), before)

    @mock.patch('countries.sources.requests.get')
    def test_refresh_names_the_failing_endpoint(self, mock_get):
        def side_effect(url, timeout=10):
            if 'restcountries' in url:
                return FakeResp([{'name': 'Mockland', 'population': 1}])
            return FakeResp({}, status=500)

        mock_get.side_effect = side_effect
        with override_settings(EXCHANGE_RATES_API_URL='https://rates.example.com/latest/USD'):
            resp = self.client.post('/countries/refresh')
        self.assertEqual(resp.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(
            resp.json()['details'],
            'Could not fetch data from https://rates.example.com/latest/USD',
        )
        self.assertFalse(Country.objects.filter(name='Mockland').exists())

    def test_refresh_storage_failure(self):
        from countries.exceptions import StorageError
        with mock.patch('countries.services.refresh_countries', side_effect=StorageError('disk full')):
            resp = self.client.post('/countries/refresh')
        self.assertEqual(resp.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)

    def test_refresh_requires_post(self):
        resp = self.client.get('/countries/refresh')
        self.assertEqual(resp.status_code, status.HTTP_405_METHOD_NOT_ALLOWED)
