"""HTML shells rendered with render_template_string. Data is loaded from the JSON API."""

BASE_STYLE = """
<style>
  body { font-family: system-ui, sans-serif; margin: 0; background: #fafaf9; color: #1c1917; }
  header { background: linear-gradient(90deg, #ea580c, #d97706); color: white; padding: 1rem 2rem; }
  header a { color: white; margin-right: 1rem; text-decoration: none; font-weight: 600; }
  main { max-width: 72rem; margin: 0 auto; padding: 2rem; }
  .banner { padding: .75rem 1rem; border-radius: .75rem; margin-bottom: 1rem; }
  .banner.warning { background: #fef3c7; } .banner.info { background: #dbeafe; }
  .alert-red { background: #dc2626; color: white; } .alert-orange { background: #ea580c; color: white; }
  .alert-yellow { background: #eab308; }
</style>
"""

NAV = """
<header>
  <strong>{{ site_name }}</strong>
  <a href="{{ url_for('home') }}">Home</a>
  <a href="{{ url_for('hail_map_page') }}">Hail Map</a>
</header>
"""

# Feed and provider text reaches innerHTML and map popups only through esc()
ESCAPE_SCRIPT = """
<script>
  const esc = (value) => String(value ?? '').replace(/[&<>"']/g, (c) => ({
    '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;'
  })[c]);
</script>
"""

HOME_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>{{ site_name }}</title>
""" + BASE_STYLE + """
  {% if onesignal_app_id %}
  <script src="https://cdn.onesignal.com/sdks/web/v16/OneSignalSDK.page.js" defer></script>
  <script>
    window.OneSignalDeferred = window.OneSignalDeferred || [];
    OneSignalDeferred.push(async function(OneSignal) {
      await OneSignal.init({ appId: "{{ onesignal_app_id }}", notifyButton: { enable: false } });
    });
  </script>
  {% endif %}
</head>
<body>
""" + NAV + ESCAPE_SCRIPT + """
<main>
  <div id="alerts"></div>
  <form id="zip-form"><input id="zip" maxlength="5" placeholder="ZIP code"> <button>Search</button></form>
  <section id="current"></section>
  <h3>5-Day Forecast</h3>
  <section id="forecast"></section>
  <h3>Nearby Webcams</h3>
  <section id="webcams"></section>
</main>
<script>
  const fmt = (d) => `${esc(d.location)}: ${esc(d.temperature_f ?? '--')}&deg;F, ${esc(d.condition)}`;
  async function load(query) {
    const weather = await fetch(`{{ url_for('api_weather') }}?${query}`).then(r => r.json());
    if (weather.error) { document.getElementById('current').textContent = weather.error; return; }
    document.getElementById('current').innerHTML = fmt(weather);
    document.getElementById('forecast').innerHTML = weather.forecast
      .map(f => `<div>${esc(f.day)}: ${esc(f.high)}&deg; / ${esc(f.low)}&deg; ${esc(f.condition)}</div>`).join('');
    const coords = `lat=${weather.lat}&lon=${weather.lon}`;
    const alerts = await fetch(`{{ url_for('api_alerts') }}?${coords}`).then(r => r.json());
    document.getElementById('alerts').innerHTML = (alerts.alerts || [])
      .map(a => `<div class="banner alert-${esc(a.style)}"><b>${esc(a.event)}</b> ${esc(a.area)}<br>${esc(a.headline)}</div>`).join('');
    const cams = await fetch(`{{ url_for('api_webcams') }}?${coords}`).then(r => r.json());
    document.getElementById('webcams').innerHTML = (cams.webcams || [])
      .map(c => `<figure><img src="${esc(c.image)}" width="240"><figcaption>${esc(c.title)} (${esc(c.distance_miles)} mi)</figcaption></figure>`)
      .join('') || 'No webcams found nearby.';
  }
  document.getElementById('zip-form').onsubmit = (e) => {
    e.preventDefault();
    load(`zip=${encodeURIComponent(document.getElementById('zip').value)}`);
  };
  load('lat={{ default_lat }}&lon={{ default_lon }}&name=Fort%20Worth,%20TX');
</script>
</body>
</html>
"""

HAIL_MAP_TEMPLATE = """<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <title>Hail Impact Map - {{ site_name }}</title>
  <link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css">
  <script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
""" + BASE_STYLE + """
  <style> #map { height: 32rem; border-radius: 1rem; } li { cursor: pointer; } </style>
</head>
<body>
""" + NAV + ESCAPE_SCRIPT + """
<main>
  <div id="message"></div>
  <select id="range">
    <option value="sample">Sample Data</option>
    <option value="today">Today</option>
    <option value="yesterday">Yesterday</option>
    <option value="custom">Custom Date</option>
  </select>
  <input type="date" id="custom-date" min="{{ earliest_date }}">
  <button id="load">Load Date</button>
  <input id="zip" maxlength="5" placeholder="ZIP code"> <button id="zip-search">Filter</button>
  <button id="zip-clear">Clear</button>
  <div id="map"></div>
  <p id="count"></p>
  <ul id="events"></ul>
  <div id="detail"></div>
</main>
<script>
  const api = "{{ url_for('api_hail_map') }}";
  const map = L.map('map');
  let layer = L.layerGroup().addTo(map);
  const post = (url, body, method = 'POST') => fetch(url, {
    method, headers: {'Content-Type': 'application/json'}, body: JSON.stringify(body || {})
  }).then(r => r.json());

  function render(state) {
    const view = state.view;
    const msg = state.notice || state.message;
    document.getElementById('message').innerHTML = msg ? `<div class="banner ${esc(msg.level)}">${esc(msg.text)}</div>` : '';
    if (!layer._tilesAdded) { L.tileLayer(view.tiles.url, {attribution: view.tiles.attribution}).addTo(map); layer._tilesAdded = true; }
    layer.clearLayers();
    map.setView(view.center, view.zoom);
    view.markers.forEach(m => L.circleMarker([m.lat, m.lon], {color: m.color, radius: 8})
      .bindPopup(`<b>${esc(m.popup.title)}</b><br>${esc(m.popup.time)}<br>${esc(m.popup.size)}`)
      .on('click', () => select(m.id)).addTo(layer));
    if (view.circle) L.circle([view.circle.lat, view.circle.lon], {radius: view.circle.radius_meters}).addTo(layer);
    if (view.fit_bounds) map.fitBounds(view.fit_bounds.points, {padding: view.fit_bounds.padding, maxZoom: view.fit_bounds.max_zoom});
    document.getElementById('count').textContent = `${view.event_count} events`;
    document.getElementById('events').innerHTML = view.rows
      .map(r => `<li data-id="${esc(r.id)}" style="border-left: 4px solid ${esc(r.color)}">${esc(r.title)} - ${esc(r.time)} - ${esc(r.size)}</li>`).join('');
    document.querySelectorAll('#events li').forEach(li => li.onclick = () => select(Number(li.dataset.id)));
  }
  async function select(id) {
    document.getElementById('detail').textContent = 'Loading...';
    const d = await post(`${api}/events/${id}/select`);
    document.getElementById('detail').innerHTML = d.error ? esc(d.error) :
      `<b>${esc(d.event.location)}, ${esc(d.event.state)}</b> ${esc(d.size_label)} - ZIP ${esc(d.zip_code)}, ` +
      `~${esc(d.estimated_population)} people affected<br>${esc(d.event.comments)}`;
  }
  const apply = (state) => state.error ? alert(state.error) : render(state);
  document.getElementById('range').onchange = (e) => {
    if (e.target.value !== 'custom') post(`${api}/date`, {date_range: e.target.value}).then(apply);
  };
  document.getElementById('load').onclick = () => post(`${api}/date`, {
    date_range: document.getElementById('range').value,
    custom_date: document.getElementById('custom-date').value
  }).then(apply);
  document.getElementById('zip-search').onclick = () => post(`${api}/zip`, {zip: document.getElementById('zip').value})
    .then(apply);
  document.getElementById('zip-clear').onclick = () => post(`${api}/zip`, null, 'DELETE').then(apply);
  fetch(api).then(r => r.json()).then(apply);
</script>
</body>
</html>
"""

ADMIN_TEMPLATE = """<!doctype html>
<html lang="en">
<head><meta charset="utf-8"><title>Admin - {{ site_name }}</title>""" + BASE_STYLE + """</head>
<body>
""" + NAV + """
<main>
  {% if authenticated %}
    <h2>Send Weather Alert</h2>
    <div id="templates">
      {% for t in templates %}<button data-title="{{ t.title }}" data-message="{{ t.message }}">{{ t.label }}</button>{% endfor %}
    </div>
    <p><input id="title" placeholder="Title" size="60"></p>
    <p><textarea id="body" rows="4" cols="60" placeholder="Message"></textarea></p>
    <p><input id="url" placeholder="{{ site_url }}" size="60"></p>
    <button id="send">Send Notification</button> <button id="logout">Log out</button>
    <div id="result"></div>
    <script>
      document.querySelectorAll('#templates button').forEach(b => b.onclick = () => {
        document.getElementById('title').value = b.dataset.title;
        document.getElementById('body').value = b.dataset.message;
      });
      const post = (url, body) => fetch(url, {method: 'POST', headers: {'Content-Type': 'application/json'},
        body: JSON.stringify(body || {})}).then(r => r.json());
      document.getElementById('send').onclick = () => post("{{ url_for('admin_notify') }}", {
        title: document.getElementById('title').value,
        message: document.getElementById('body').value,
        url: document.getElementById('url').value
      }).then(r => document.getElementById('result').textContent = r.error || 'Notification sent!');
      document.getElementById('logout').onclick = () => post("{{ url_for('admin_logout') }}").then(() => location.reload());
    </script>
  {% else %}
    <h2>Admin Access</h2>
    <form id="login"><input type="password" id="password" placeholder="Enter admin password"> <button>Log in</button></form>
    <div id="result"></div>
    <script>
      document.getElementById('login').onsubmit = async (e) => {
        e.preventDefault();
        const r = await fetch("{{ url_for('admin_login') }}", {method: 'POST', headers: {'Content-Type': 'application/json'},
          body: JSON.stringify({password: document.getElementById('password').value})}).then(r => r.json());
        if (r.error) document.getElementById('result').textContent = r.error; else location.reload();
      };
    </script>
  {% endif %}
</main>
</body>
</html>
"""
