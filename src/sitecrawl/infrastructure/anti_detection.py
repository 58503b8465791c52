"""
Browser environment patches that reduce bot-detection rates.

Every patch is an independent init script installed with
``page.add_init_script`` before navigation. Scripts are wrapped so that a
failure inside one never affects the others, and guarded by a hidden
per-patch marker so installing the same patch twice is a no-op.

Failures on the Python side are logged and swallowed: anti-detection is
best-effort and must never abort a crawl.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


# Seeded PRNG shared by the fingerprint-noise patches. The seed is fixed per
# AntiDetection instance so repeated reads within a crawl return the same
# noise while different crawls look like different machines.
_PRNG = """
    const __seed = __NOISE_SEED__;
    const __rand = (() => {
        let a = __seed >>> 0;
        return () => {
            a |= 0; a = a + 0x6D2B79F5 | 0;
            let t = Math.imul(a ^ a >>> 15, 1 | a);
            t = t + Math.imul(t ^ t >>> 7, 61 | t) ^ t;
            return ((t ^ t >>> 14) >>> 0) / 4294967296;
        };
    })();
"""

# Shared by the listener-jitter patches. Each (listener, type) pair maps to one
# wrapper so removeEventListener with the page's original listener still
# detaches the wrapped one, and repeated adds stay deduplicated.
_LISTENER_WRAPPERS = """
    const __wrappers = (() => {
        const key = Symbol.for('patch:listenerWrappers');
        if (!window[key]) {
            const wrappers = new WeakMap();
            Object.defineProperty(window, key, { value: wrappers, enumerable: false });
            const removeEventListener = EventTarget.prototype.removeEventListener;
            EventTarget.prototype.removeEventListener = function(type, listener, options) {
                const byType = typeof listener === 'function' ? wrappers.get(listener) : undefined;
                const wrapped = byType && byType.get(type);
                if (wrapped) {
                    removeEventListener.call(this, type, wrapped, options);
                }
                return removeEventListener.call(this, type, listener, options);
            };
        }
        return window[key];
    })();
    const __wrapListener = (type, listener, wrapper) => {
        let byType = __wrappers.get(listener);
        if (!byType) {
            byType = new Map();
            __wrappers.set(listener, byType);
        }
        if (!byType.has(type)) {
            byType.set(type, wrapper);
        }
        return byType.get(type);
    };
"""

STEALTH_PATCHES: Dict[str, str] = {
    "webdriver": """
        Object.defineProperty(Navigator.prototype, 'webdriver', {
            get: () => undefined,
            configurable: true
        });
        const originalGetAttribute = Element.prototype.getAttribute;
        Element.prototype.getAttribute = function(name) {
            if (name === 'webdriver') {
                return null;
            }
            return originalGetAttribute.apply(this, arguments);
        };
    """,
    "chrome_runtime": """
        if (!window.chrome) {
            window.chrome = {};
        }
        const now = () => Date.now() / 1000;
        window.chrome.app = window.chrome.app || { isInstalled: false };
        window.chrome.loadTimes = window.chrome.loadTimes || function() {
            return {
                commitLoadTime: now() - Math.random() * 10,
                finishDocumentLoadTime: now() - Math.random() * 9,
                finishLoadTime: now() - Math.random() * 8,
                firstPaintAfterLoadTime: 0,
                firstPaintTime: now() - Math.random() * 7,
                navigationType: 'Other',
                npnNegotiatedProtocol: 'unknown',
                requestTime: now() - Math.random() * 10,
                startLoadTime: now() - Math.random() * 10,
                wasAlternateProtocolAvailable: false,
                wasFetchedViaSpdy: false,
                wasNpnNegotiated: false
            };
        };
        window.chrome.csi = window.chrome.csi || function() {
            return {
                startE: Date.now() - Math.random() * 10000,
                onloadT: Date.now() - Math.random() * 5000,
                pageT: Math.random() * 1000,
                tran: 15
            };
        };
    """,
    "canvas_noise": _PRNG + """
        const getImageData = CanvasRenderingContext2D.prototype.getImageData;
        CanvasRenderingContext2D.prototype.getImageData = function() {
            const imageData = getImageData.apply(this, arguments);
            const shift = Math.floor(__rand() * 3) - 1;
            for (let i = 0; i < imageData.data.length; i += 4) {
                imageData.data[i] = Math.max(0, Math.min(255, imageData.data[i] + shift));
            }
            return imageData;
        };
        const toDataURL = HTMLCanvasElement.prototype.toDataURL;
        HTMLCanvasElement.prototype.toDataURL = function() {
            const context = this.getContext('2d');
            if (context && this.width && this.height) {
                const pixel = context.getImageData(0, 0, 1, 1);
                pixel.data[0] = (pixel.data[0] + (__seed % 2)) % 256;
                context.putImageData(pixel, 0, 0);
            }
            return toDataURL.apply(this, arguments);
        };
    """,
    "webgl_vendor": """
        const patchGetParameter = (proto) => {
            const getParameter = proto.getParameter;
            proto.getParameter = function(parameter) {
                // UNMASKED_VENDOR_WEBGL / UNMASKED_RENDERER_WEBGL
                if (parameter === 37445) {
                    return 'Intel Inc.';
                }
                if (parameter === 37446) {
                    return 'Intel Iris OpenGL Engine';
                }
                return getParameter.apply(this, arguments);
            };
        };
        if (typeof WebGLRenderingContext !== 'undefined') {
            patchGetParameter(WebGLRenderingContext.prototype);
        }
        if (typeof WebGL2RenderingContext !== 'undefined') {
            patchGetParameter(WebGL2RenderingContext.prototype);
        }
    """,
    "audio_noise": _PRNG + """
        const AudioCtx = window.AudioContext || window.webkitAudioContext;
        if (AudioCtx) {
            const noise = __rand() * 0.0001;
            const createAnalyser = AudioCtx.prototype.createAnalyser;
            AudioCtx.prototype.createAnalyser = function() {
                const analyser = createAnalyser.apply(this, arguments);
                const getFloatFrequencyData = analyser.getFloatFrequencyData;
                analyser.getFloatFrequencyData = function(array) {
                    getFloatFrequencyData.apply(this, arguments);
                    for (let i = 0; i < array.length; i++) {
                        array[i] += noise;
                    }
                };
                return analyser;
            };
        }
    """,
    "webrtc": """
        const NativeRTC = window.RTCPeerConnection;
        if (NativeRTC) {
            const scrub = (desc) => {
                if (desc && desc.sdp) {
                    desc.sdp = desc.sdp.replace(/a=ice-options:.*\\r\\n/g, '');
                }
                return desc;
            };
            window.RTCPeerConnection = function(...args) {
                const pc = new NativeRTC(...args);
                const createOffer = pc.createOffer.bind(pc);
                const createAnswer = pc.createAnswer.bind(pc);
                pc.createOffer = async (...a) => scrub(await createOffer(...a));
                pc.createAnswer = async (...a) => scrub(await createAnswer(...a));
                return pc;
            };
            window.RTCPeerConnection.prototype = NativeRTC.prototype;
        }
    """,
    "battery": """
        if (navigator.getBattery) {
            const getBattery = navigator.getBattery.bind(navigator);
            const level = 0.8 + Math.random() * 0.2;
            navigator.getBattery = async () => {
                const battery = await getBattery();
                Object.defineProperty(battery, 'level', { get: () => level, configurable: true });
                Object.defineProperty(battery, 'charging', { get: () => true, configurable: true });
                return battery;
            };
        }
    """,
    "permissions": """
        if (navigator.permissions && navigator.permissions.query) {
            const query = navigator.permissions.query.bind(navigator.permissions);
            navigator.permissions.query = (parameters) => query(parameters).then((result) => {
                if (parameters && parameters.name === 'notifications') {
                    Object.defineProperty(result, 'state', { get: () => 'prompt', configurable: true });
                }
                return result;
            });
        }
    """,
    "media_devices": """
        if (navigator.mediaDevices && navigator.mediaDevices.enumerateDevices) {
            const enumerateDevices = navigator.mediaDevices.enumerateDevices.bind(navigator.mediaDevices);
            navigator.mediaDevices.enumerateDevices = async () => {
                const devices = await enumerateDevices();
                return devices.map((device) => ({
                    deviceId: device.deviceId,
                    groupId: device.groupId,
                    kind: device.kind,
                    label: device.label || 'Default Device',
                    toJSON: () => ({})
                }));
            };
        }
    """,
    "plugins": """
        Object.defineProperty(navigator, 'plugins', {
            get: () => {
                const plugins = [
                    { name: 'Chrome PDF Plugin', filename: 'internal-pdf-viewer', description: 'Portable Document Format', length: 1 },
                    { name: 'Chrome PDF Viewer', filename: 'mhjfbmdgcfjbbpaeojofohoefgiehjai', description: '', length: 1 },
                    { name: 'Native Client', filename: 'internal-nacl-plugin', description: '', length: 2 }
                ];
                plugins.item = (index) => plugins[index];
                plugins.namedItem = (name) => plugins.find(p => p.name === name);
                plugins.refresh = () => {};
                return plugins;
            },
            configurable: true
        });
    """,
    "languages": """
        Object.defineProperty(navigator, 'languages', {
            get: () => ['en-US', 'en'],
            configurable: true
        });
        Object.defineProperty(navigator, 'language', {
            get: () => 'en-US',
            configurable: true
        });
    """,
    "timezone": """
        // America/New_York, matching the context's timezone_id
        Date.prototype.getTimezoneOffset = function() {
            return 300;
        };
        const resolvedOptions = Intl.DateTimeFormat.prototype.resolvedOptions;
        Intl.DateTimeFormat.prototype.resolvedOptions = function() {
            const options = resolvedOptions.apply(this, arguments);
            options.timeZone = 'America/New_York';
            return options;
        };
    """,
    "screen": """
        const define = (name, getter) => Object.defineProperty(screen, name, { get: getter, configurable: true });
        define('availWidth', () => window.innerWidth);
        define('availHeight', () => window.innerHeight);
        define('availTop', () => 0);
        define('availLeft', () => 0);
        define('colorDepth', () => 24);
        define('pixelDepth', () => 24);
    """,
    "connection": """
        Object.defineProperty(navigator, 'connection', {
            get: () => ({
                effectiveType: '4g',
                rtt: 50,
                downlink: 10,
                saveData: false
            }),
            configurable: true
        });
        Object.defineProperty(navigator, 'hardwareConcurrency', { get: () => 8, configurable: true });
        Object.defineProperty(navigator, 'deviceMemory', { get: () => 8, configurable: true });
    """,
    "automation_indicators": """
        const props = [
            'cdc_adoQpoasnfa76pfcZLmcfl_Array',
            'cdc_adoQpoasnfa76pfcZLmcfl_Promise',
            'cdc_adoQpoasnfa76pfcZLmcfl_Symbol',
            'cdc_adoQpoasnfa76pfcZLmcfl_Object',
            'cdc_adoQpoasnfa76pfcZLmcfl_Proxy',
            'cdc_adoQpoasnfa76pfcZLmcfl_JSON',
            '$cdc_asdjflasutopfhvcZLmcfl_',
            '$chrome_asyncScriptInfo',
            '__$webdriverAsyncExecutor',
            '_Selenium_IDE_Recorder',
            '__webdriver_script_fn',
            '__driver_evaluate',
            '__webdriver_evaluate',
            '__selenium_evaluate',
            '__fxdriver_evaluate',
            '__driver_unwrapped',
            '__webdriver_unwrapped',
            '__selenium_unwrapped',
            '__fxdriver_unwrapped',
            '_selenium',
            'calledSelenium',
            '_WEBDRIVER_ELEM_CACHE'
        ];
        props.forEach((prop) => {
            try {
                delete window[prop];
                delete document[prop];
            } catch (e) {}
        });
    """,
    "human_traits": """
        const addEventListener = EventTarget.prototype.addEventListener;
        EventTarget.prototype.addEventListener = function(type, listener, options) {
            if (type === 'error' && listener && typeof listener.toString === 'function'
                    && listener.toString().includes('webdriver')) {
                return;
            }
            return addEventListener.apply(this, arguments);
        };
    """,
    "google_detections": """
        if (!window.chrome) {
            window.chrome = {};
        }
        window.chrome.runtime = {
            connect: function() { return {}; },
            sendMessage: function() { return Promise.resolve({}); },
            onConnect: { addListener: function() {} },
            onMessage: { addListener: function() {} }
        };
        delete window.__PUPPETEER_WORLD__;
        delete window.__PUPPETEER_EXECUTION_CONTEXT__;
        delete window.__puppeteer_evaluation__;
        const consoleError = console.error;
        console.error = function(...args) {
            const message = args.join(' ');
            if (/webdriver|puppeteer|selenium|playwright|automation/i.test(message)) {
                return;
            }
            return consoleError.apply(console, args);
        };
        Object.defineProperty(navigator, 'maxTouchPoints', { get: () => 0, configurable: true });
    """,
    "recaptcha_indicators": """
        const hidden = new Set(['webdriver', '__webdriver__', '__selenium__', '__puppeteer__', '__playwright__']);
        const hasOwnProperty = Object.prototype.hasOwnProperty;
        Object.prototype.hasOwnProperty = function(prop) {
            if (hidden.has(prop)) {
                return false;
            }
            return hasOwnProperty.call(this, prop);
        };
        delete window.__playwright__binding__;
        delete window.__pwInitScripts;
    """,
    "behavioral_load": """
        const windowAddEventListener = window.addEventListener;
        window.addEventListener = function(type, listener, options) {
            if (type === 'load' && typeof listener === 'function') {
                const delayed = function(event) {
                    setTimeout(() => listener.call(window, event), Math.random() * 100);
                };
                return windowAddEventListener.call(window, type, delayed, options);
            }
            return windowAddEventListener.apply(window, arguments);
        };
    """,
    "mouse_jitter": _LISTENER_WRAPPERS + """
        const addEventListener = EventTarget.prototype.addEventListener;
        const mouseEvents = new Set(['mousemove', 'mouseover', 'mouseout']);
        EventTarget.prototype.addEventListener = function(type, listener, options) {
            if (mouseEvents.has(type) && typeof listener === 'function') {
                const wrapped = __wrapListener(type, listener, function(event) {
                    const jittered = new Proxy(event, {
                        get: (target, prop) => {
                            if (prop === 'clientX') return target.clientX + (Math.random() * 0.5 - 0.25);
                            if (prop === 'clientY') return target.clientY + (Math.random() * 0.5 - 0.25);
                            const value = target[prop];
                            return typeof value === 'function' ? value.bind(target) : value;
                        }
                    });
                    return listener.call(this, jittered);
                });
                return addEventListener.call(this, type, wrapped, options);
            }
            return addEventListener.apply(this, arguments);
        };
    """,
    "keyboard_jitter": _LISTENER_WRAPPERS + """
        const addEventListener = EventTarget.prototype.addEventListener;
        const keyEvents = new Set(['keydown', 'keyup', 'keypress']);
        EventTarget.prototype.addEventListener = function(type, listener, options) {
            // Only passive listeners and keyup are delayed; the rest must be
            // able to call preventDefault while the event is dispatching
            const passive = typeof options === 'object' && options !== null && options.passive === true;
            if (keyEvents.has(type) && typeof listener === 'function' && (passive || type === 'keyup')) {
                const wrapped = __wrapListener(type, listener, function(event) {
                    const target = this;
                    setTimeout(() => listener.call(target, event), 10 + Math.random() * 50);
                });
                return addEventListener.call(this, type, wrapped, options);
            }
            return addEventListener.apply(this, arguments);
        };
    """,
    "scroll_jitter": _LISTENER_WRAPPERS + """
        const addEventListener = EventTarget.prototype.addEventListener;
        const scrollEvents = new Set(['scroll', 'wheel']);
        EventTarget.prototype.addEventListener = function(type, listener, options) {
            const passive = typeof options === 'object' && options !== null && options.passive === true;
            if (scrollEvents.has(type) && typeof listener === 'function' && (passive || type === 'scroll')) {
                const wrapped = __wrapListener(type, listener, function(event) {
                    const target = this;
                    setTimeout(() => listener.call(target, event), Math.random() * 10);
                });
                return addEventListener.call(this, type, wrapped, options);
            }
            return addEventListener.apply(this, arguments);
        };
    """,
    "timer_jitter": """
        const nativeSetTimeout = window.setTimeout;
        window.setTimeout = function(callback, delay, ...args) {
            const jitter = Math.random() * 10 - 5;
            return nativeSetTimeout(callback, Math.max(0, (delay || 0) + jitter), ...args);
        };
        const nativeSetInterval = window.setInterval;
        window.setInterval = function(callback, delay, ...args) {
            const jitter = Math.random() * 5 - 2.5;
            return nativeSetInterval(callback, Math.max(0, (delay || 0) + jitter), ...args);
        };
    """,
}

# Installed through a CDP session so the page's own scripts cannot observe the
# injection point
CDP_PATCH = """
    Object.defineProperty(navigator, 'webdriver', {
        get: () => undefined,
        configurable: true
    });
    Object.defineProperty(window, '__REACT_DEVTOOLS_GLOBAL_HOOK__', {
        get: () => undefined,
        configurable: true
    });
"""


def wrap_patch(name: str, source: str) -> str:
    """Make a patch idempotent and isolated from the others."""
    return f"""
(() => {{
    const marker = Symbol.for('patch:{name}');
    if (window[marker]) {{
        return;
    }}
    Object.defineProperty(window, marker, {{ value: true, enumerable: false }});
    try {{
{source}
    }} catch (e) {{}}
}})();
"""


@dataclass
class AntiDetectionReport:
    """Which patches were installed on a page."""
    applied: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    cdp_applied: bool = False


class AntiDetection:
    """
    Installs the stealth patch set on a Playwright page.

    Usage:
        anti_detection = AntiDetection()
        await anti_detection.apply_protections(page)
        await page.goto(url)
    """

    def __init__(
        self,
        patches: Optional[Mapping[str, str]] = None,
        use_cdp: bool = True,
        noise_seed: Optional[int] = None,
    ):
        """
        Args:
            patches: Patch name -> JS source. Defaults to STEALTH_PATCHES.
            use_cdp: Also install CDP_PATCH through a CDP session (Chromium only)
            noise_seed: Seed for fingerprint noise; random if omitted
        """
        self.patches = dict(STEALTH_PATCHES if patches is None else patches)
        self.use_cdp = use_cdp
        self.noise_seed = noise_seed if noise_seed is not None else random.randint(1, 2**31 - 1)

    def scripts(self) -> Dict[str, str]:
        """Return the wrapped, seeded script for every patch."""
        return {
            name: wrap_patch(name, source.replace("__NOISE_SEED__", str(self.noise_seed)))
            for name, source in self.patches.items()
        }

    async def apply_protections(self, page) -> AntiDetectionReport:
        """
        Install every patch on ``page``. Never raises.

        Args:
            page: Playwright Page, before navigation

        Returns:
            AntiDetectionReport listing applied and failed patches
        """
        report = AntiDetectionReport()

        for name, script in self.scripts().items():
            try:
                await page.add_init_script(script)
                report.applied.append(name)
            except Exception as e:
                report.failed.append(name)
                logger.warning(f"Failed to apply anti-detect patch '{name}': {e}")

        if self.use_cdp:
            report.cdp_applied = await self._apply_cdp(page)

        logger.debug(
            f"Anti-detect patches applied: {len(report.applied)}/{len(self.patches)}"
            f" (cdp={report.cdp_applied})"
        )
        return report

    async def _apply_cdp(self, page) -> bool:
        try:
            client = await page.context.new_cdp_session(page)
            await client.send(
                "Page.addScriptToEvaluateOnNewDocument",
                {"source": CDP_PATCH},
            )
            await client.detach()
            return True
        except Exception as e:
            logger.debug(f"CDP masking failed: {e}")
            return False
