"""Dashboard Page

Single-page HTML dashboard served at ``/``. It reads the snapshot and alerts
over HTTP and then follows the push channel for live metrics and alerts.
"""

DASHBOARD_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Performance Dashboard</title>
    <script src="https://cdn.jsdelivr.net/npm/chart.js"></script>
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; background: #f5f5f5; color: #333; }
        .header { background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 1rem 2rem; }
        .header h1 { font-size: 1.5rem; font-weight: 600; }
        .header .status { font-size: 0.9rem; opacity: 0.9; margin-top: 0.25rem; }
        .dashboard { display: grid; grid-template-columns: repeat(auto-fit, minmax(300px, 1fr)); gap: 1.5rem; padding: 2rem; max-width: 1400px; margin: 0 auto; }
        .card { background: white; border-radius: 8px; padding: 1.5rem; box-shadow: 0 2px 8px rgba(0,0,0,0.1); }
        .card h2 { font-size: 1.2rem; margin-bottom: 1rem; color: #555; border-bottom: 2px solid #eee; padding-bottom: 0.5rem; }
        .metric-grid { display: grid; grid-template-columns: repeat(auto-fit, minmax(120px, 1fr)); gap: 1rem; }
        .metric { text-align: center; padding: 1rem; background: #f8f9fa; border-radius: 6px; }
        .metric-value { font-size: 1.8rem; font-weight: bold; color: #2563eb; }
        .metric-label { font-size: 0.85rem; color: #666; margin-top: 0.25rem; }
        .chart-container { position: relative; height: 300px; }
        .alerts { max-height: 400px; overflow-y: auto; }
        .alert { padding: 0.75rem; margin-bottom: 0.5rem; border-left: 4px solid #ef4444; background: #fef2f2; border-radius: 4px; }
        .alert.acknowledged { border-left-color: #10b981; background: #ecfdf5; }
        .alert-time { font-size: 0.8rem; color: #666; margin-bottom: 0.25rem; }
    </style>
</head>
<body>
    <div class="header">
        <h1>Performance Dashboard</h1>
        <div class="status" id="connectionStatus">Connecting...</div>
    </div>

    <div class="dashboard">
        <div class="card">
            <h2>Real-time Metrics</h2>
            <div class="metric-grid">
                <div class="metric"><div class="metric-value" id="activeSessions">-</div><div class="metric-label">Sessions</div></div>
                <div class="metric"><div class="metric-value" id="avgPageLoad">-</div><div class="metric-label">Avg Page Load (ms)</div></div>
                <div class="metric"><div class="metric-value" id="avgSearch">-</div><div class="metric-label">Avg Search (ms)</div></div>
                <div class="metric"><div class="metric-value" id="totalMetrics">-</div><div class="metric-label">Total Metrics</div></div>
            </div>
        </div>

        <div class="card">
            <h2>Performance Chart</h2>
            <div class="chart-container"><canvas id="performanceChart"></canvas></div>
        </div>

        <div class="card">
            <h2>Recent Alerts</h2>
            <div class="alerts" id="alertsList"><p>No recent alerts</p></div>
        </div>
    </div>

    <script>
        const ws = new WebSocket(`ws://${location.hostname}:__WS_PORT__`);
        const chart = new Chart(document.getElementById('performanceChart').getContext('2d'), {
            type: 'line',
            data: {
                labels: [],
                datasets: [
                    { label: 'Page Load Time (ms)', data: [], borderColor: '#3b82f6', tension: 0.4 },
                    { label: 'Search Response (ms)', data: [], borderColor: '#10b981', tension: 0.4 }
                ]
            },
            options: { responsive: true, maintainAspectRatio: false, scales: { y: { beginAtZero: true } } }
        });
        const chartSeries = { page_load_time: 0, search_response_time: 1 };

        ws.onopen = () => { document.getElementById('connectionStatus').textContent = 'Real-time monitoring active'; };
        ws.onclose = () => { document.getElementById('connectionStatus').textContent = 'Disconnected'; };

        ws.onmessage = (event) => {
            const message = JSON.parse(event.data);
            switch (message.type) {
                case 'initial': updateDashboard(message.data); break;
                case 'metric': handleNewMetric(message.data); break;
                case 'alert': handleNewAlert(message.data); break;
            }
        };

        function updateDashboard(data) {
            document.getElementById('activeSessions').textContent = data.activeSessions || 0;
            document.getElementById('avgPageLoad').textContent = Math.round(data.performance?.pageLoad?.avg || 0);
            document.getElementById('avgSearch').textContent = Math.round(data.performance?.search?.avg || 0);
            document.getElementById('totalMetrics').textContent = data.totalMetrics || 0;
        }

        function handleNewMetric(metric) {
            const index = chartSeries[metric.name];
            if (index === undefined) return;
            chart.data.labels.push(new Date(metric.receivedAt).toLocaleTimeString());
            chart.data.datasets.forEach((dataset, i) => dataset.data.push(i === index ? metric.value : null));
            if (chart.data.labels.length > 50) {
                chart.data.labels.shift();
                chart.data.datasets.forEach(dataset => dataset.data.shift());
            }
            chart.update('none');
        }

        function handleNewAlert(alert) {
            const list = document.getElementById('alertsList');
            if (list.firstChild && list.firstChild.tagName === 'P') list.removeChild(list.firstChild);
            const div = document.createElement('div');
            div.className = alert.type === 'alert_acknowledged' ? 'alert acknowledged' : 'alert';
            const time = document.createElement('div');
            time.className = 'alert-time';
            time.textContent = new Date(alert.receivedAt).toLocaleString();
            const body = document.createElement('div');
            body.textContent = `${alert.type}: ${JSON.stringify(alert.data)}`;
            div.appendChild(time);
            div.appendChild(body);
            if (alert.type !== 'alert_acknowledged') {
                div.onclick = () => ws.send(JSON.stringify({ type: 'acknowledge_alert', alertId: alert.id }));
            }
            list.insertBefore(div, list.firstChild);
            while (list.children.length > 10) list.removeChild(list.lastChild);
        }

        fetch('/api/dashboard/alerts?limit=10')
            .then(response => response.json())
            .then(alerts => alerts.reverse().forEach(handleNewAlert))
            .catch(error => console.error('Error fetching alerts:', error));
    </script>
</body>
</html>
"""


def render_dashboard_page(websocket_port: int) -> str:
    """Dashboard HTML pointed at the push channel port"""
    return DASHBOARD_TEMPLATE.replace("__WS_PORT__", str(int(websocket_port)))
