from __future__ import annotations

import pytest
from bs4 import BeautifulSoup

from bw_analyze.config import AnalyzerSettings

ORDER_APP_CHART = """
google.charts.setOnLoadCallback(function () {
  var data = new google.visualization.DataTable();
  data.addColumn('datetime', 'Time');
  data.addColumn('number', 'Jobs Created');
  data.addColumn('number', 'Jobs Faulted');
  data.addRows([
    [new Date(2024, 0, 15, 10, 30, 0), 12, 1],
    [new Date(2024, 0, 15, 10, 31, 0), 15, 0],
  ]);
  var options = {title: 'Application [Order Service - 1.0]'};
  var chart = new google.visualization.LineChart(document.getElementById('appChart_order'));
  chart.draw(data, options);
});
"""

CREATE_ORDER_CHART = """
google.charts.setOnLoadCallback(function () {
  var data = new google.visualization.DataTable();
  data.addColumn('datetime', 'Time');
  data.addColumn('number', 'Jobs Created');
  data.addRows([
    [new Date(2024, 0, 15, 10, 30, 0), 7],
  ]);
  var options = {title: 'Application [Order Service - 1.0] - Process [orders.CreateOrder]'};
  var chart = new google.visualization.LineChart(document.getElementById('procChart_create'));
  chart.draw(data, options);
});
"""

BROKEN_CHART = """
  var data = new google.visualization.DataTable();
  data.addColumn('datetime', 'Time');
  data.addColumn('number', 'Jobs Created');
  data.addRows([[new Date(2024, 0, 1, 0, 0, 0), oops]]);
  var options = {title: 'Process [orders.CancelOrder]'};
  var chart = new google.visualization.LineChart(document.getElementById('procChart_cancel'));
"""

REPORT_HTML = f"""
<html>
<head><title>TIBCO BusinessWorks Report</title></head>
<body>
<div class="section">
  <h3>Operating System Information</h3>
  <div class="content">
    <table>
      <tr><td>OS Name</td><td>Linux</td></tr>
      <tr><td>OS Version</td><td>5.15.0</td></tr>
      <tr><td>OS Architecture</td><td>amd64</td></tr>
      <tr><td>Total Physical Memory</td><td>16 GB</td></tr>
      <tr><td>Free Physical Memory</td><td>4 GB</td></tr>
      <tr><td>JVM CPU Load</td><td>0.125</td></tr>
      <tr><td>Available Processors</td><td>8</td></tr>
    </table>
  </div>
</div>

<div class="section">
  <h3>Memory Information</h3>
  <table>
    <tr><td>Init Heap Size</td><td>256 MB</td></tr>
    <tr><td>Used Heap Size</td><td>512 MB</td></tr>
    <tr><td>Committed Heap Size</td><td>1 GB</td></tr>
    <tr><td>Max Heap Size</td><td>2 GB</td></tr>
    <tr><td>Init Non-Heap Size</td><td>7 MB</td></tr>
    <tr><td>Used Non-Heap Size</td><td>128 MB</td></tr>
    <tr><td>Committed Non-Heap Size</td><td>160 MB</td></tr>
    <tr><td>Max Non-Heap Size</td><td>n/a</td></tr>
  </table>
</div>

<div class="section">
  <h3>Thread Information</h3>
  <table>
    <tr><td>Thread Count</td><td>42</td></tr>
    <tr><td>Peak Thread Count</td><td>50</td></tr>
    <tr><td>Daemon Thread Count</td><td>30</td></tr>
  </table>
  <h6>Threads State Count</h6>
  <table>
    <tr><td>Runnable</td><td>10</td></tr>
    <tr><td>Waiting</td><td>20</td></tr>
    <tr><td>Timed_Waiting</td><td>10</td></tr>
    <tr><td>Blocked</td><td>2</td></tr>
    <tr><td>Parked</td><td>1</td></tr>
  </table>
  <h6>Top Threads</h6>
  <table>
    <tr><th>Id</th><th>Name</th><th>State</th><th>CPU %</th></tr>
    <tr><td>101</td><td>bw-worker-1</td><td>BLOCKED</td><td>12.5</td></tr>
    <tr><td>102</td><td>http-client-3</td><td>RUNNABLE</td><td>1.0</td></tr>
  </table>
</div>

<div class="section">
  <h3>Thread Dump</h3>
  <table>
    <tr><th>Thread Id</th><th>Thread Info</th></tr>
    <tr><td>101</td><td>Thread Name=bw-worker-1<br>Thread State=BLOCKED<br>Stack Trace=[com.acme.Cache.get(Cache.java:42)<br>- waiting to lock &lt;0x00000000c0a1b2c3&gt; (a java.util.HashMap)<br>java.lang.Thread.run(Thread.java:750)]</td></tr>
    <tr><td>102</td><td>Thread Name=http-client-3<br>Thread State=RUNNABLE<br>Stack Trace=[java.net.SocketInputStream.socketRead0(Native Method)<br>java.net.SocketInputStream.socketRead(SocketInputStream.java:116)]</td></tr>
    <tr><td>103</td><td>Thread Name=pool-2-thread-1<br>Thread State=WAITING<br>Stack Trace=[sun.misc.Unsafe.park(Native Method)<br>java.util.concurrent.LinkedBlockingQueue.take(LinkedBlockingQueue.java:442)]</td></tr>
    <tr><td>104</td><td>Thread Name=main<br>Thread State=RUNNABLE<br>Stack Trace=[java.lang.Thread.sleep(Native Method)]</td></tr>
  </table>
</div>

<div class="section">
  <h3>Runtime Information</h3>
  <table>
    <tr><td>Uptime</td><td>5 days</td></tr>
    <tr><td>System Properties</td><td>java.version=11.0.20<br>java.home=/opt/java<br>file.encoding=UTF-8<br>BW_HOME=/opt/tibco/bw</td></tr>
  </table>
</div>

<div><h4>BW Applications Information</h4></div>
<table>
  <tr><th>Application</th><th>Created</th><th>Active</th><th>Suspended</th><th>Faulted</th></tr>
  <tr><td>Order Service - 1.0</td><td>1,200</td><td>5</td><td>0</td><td>2</td></tr>
  <tr><td>Billing - 2.1</td><td>300</td><td>3</td><td>1</td><td>1</td></tr>
</table>

<div><h6>Application [Order Service - 1.0] - Processes</h6></div>
<table>
  <tr><th>Process</th><th>Created</th><th>Completed</th><th>Faulted</th><th>Suspended</th></tr>
  <tr><td>orders.CreateOrder</td><td>1,000</td><td>990</td><td>2</td><td>0</td></tr>
  <tr><td>orders.CancelOrder</td><td>200</td><td>200</td><td>0</td><td>0</td></tr>
</table>

<div><h6>Application [Order Service] - Process [orders.CreateOrder] - Activities</h6></div>
<table>
  <tr><th>Activity</th><th>Status</th><th>Executed</th><th>Faulted</th><th>Recent</th><th>Min</th><th>Max</th><th>Total</th></tr>
  <tr><td>ParseRequest</td><td>OK</td><td>1,000</td><td>0</td><td>3</td><td>1</td><td>40</td><td>3,500</td></tr>
  <tr><td>InvokeInventory</td><td>OK</td><td>1,000</td><td>2</td><td>120</td><td>80</td><td>2,400</td><td>150,000</td></tr>
</table>

<div><h6>Application [Billing] - Processes</h6></div>
<table>
  <tr><th>Process</th><th>Created</th><th>Completed</th><th>Faulted</th><th>Suspended</th></tr>
  <tr><td>billing.Invoice</td><td>300</td><td>297</td><td>1</td><td>2</td></tr>
</table>

<div><h6>Application [Ghost] - Process [ghost.Run] - Activities</h6></div>
<table>
  <tr><th>Activity</th><th>Status</th><th>Executed</th><th>Faulted</th><th>Recent</th><th>Min</th><th>Max</th><th>Total</th></tr>
  <tr><td>Spook</td><td>OK</td><td>1</td><td>0</td><td>1</td><td>1</td><td>99,999</td><td>1</td></tr>
</table>

<div id="appChart_order"></div>
<script type="text/javascript">{ORDER_APP_CHART}</script>
<div id="procChart_create"></div>
<script type="text/javascript">{CREATE_ORDER_CHART}</script>
<div id="procChart_cancel"></div>
<script type="text/javascript">{BROKEN_CHART}</script>
</body>
</html>
"""


@pytest.fixture
def report_html() -> str:
    return REPORT_HTML


@pytest.fixture
def report_soup(report_html: str) -> BeautifulSoup:
    return BeautifulSoup(report_html, "html.parser")


@pytest.fixture
def settings() -> AnalyzerSettings:
    return AnalyzerSettings()
