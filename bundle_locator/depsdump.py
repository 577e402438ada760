"""Summaries of a located .deps.json file.

Requirements: stdlib for the text dump.
Optional:     networkx + matplotlib (for the dependency graph PNG)
"""

import json

try:
    import networkx as nx
    import matplotlib
    matplotlib.use('Agg')
    import matplotlib.pyplot as plt
    VIZ_AVAILABLE = True
except ImportError:
    VIZ_AVAILABLE = False


def load_deps(stream):
    """Parse a .deps.json stream (a UTF-8 BOM is tolerated)."""
    return json.loads(stream.read().decode('utf-8-sig'))


def runtime_target(deps):
    """Return (framework, runtime, signature) of the deps file's runtime target."""
    target = deps.get('runtimeTarget') or {}
    name = target.get('name', '')
    framework, _, runtime = name.partition('/')
    return framework, runtime, target.get('signature', '')


def runtime_libraries(deps):
    """Yield (key, library_info, target_info) for the runtime target, sorted by key."""
    target_name = (deps.get('runtimeTarget') or {}).get('name', '')
    targets = (deps.get('targets') or {}).get(target_name, {})
    libraries = deps.get('libraries') or {}
    for key in sorted(libraries, key=str.lower):
        yield key, libraries[key], targets.get(key, {})


def _print_assets(out, title, assets):
    if not assets:
        return
    out.write(f"    {title}\n")
    for path, info in assets.items():
        info = info or {}
        runtime = info.get('rid') or 'any'
        details = []
        if info.get('assemblyVersion'):
            details.append(info['assemblyVersion'])
        if info.get('fileVersion'):
            details.append(f"({info['fileVersion']})")
        suffix = f" {' '.join(details)}" if details else ""
        out.write(f"      [{runtime}] {path}{suffix}\n")


def dump_deps(deps, out):
    """Write an indented summary of the runtime target and its libraries."""
    framework, runtime, signature = runtime_target(deps)
    out.write("Target\n")
    out.write(f"  Framework: {framework}\n")
    out.write(f"  Runtime: {runtime}\n")
    out.write(f"  RuntimeSignature: {signature}\n")
    out.write(f"  IsPortable: {not runtime}\n")

    out.write("RuntimeLibraries\n")
    for key, library, target in runtime_libraries(deps):
        name, _, version = key.partition('/')
        out.write(f"  {name} {version} ({library.get('type', 'unknown')})\n")
        resources = target.get('resources') or {}
        if resources:
            out.write("    ResourceAssemblies\n")
            for path, info in resources.items():
                out.write(f"      [{(info or {}).get('locale', '')}] {path}\n")
        _print_assets(out, "RuntimeAssemblies", target.get('runtime'))
        _print_assets(out, "NativeLibraries", target.get('native'))


# region Visualization

def build_dependency_graph(deps):
    """Directed graph of runtime libraries: edge A -> B when A depends on B."""
    target_name = (deps.get('runtimeTarget') or {}).get('name', '')
    targets = (deps.get('targets') or {}).get(target_name, {})
    libraries = deps.get('libraries') or {}

    G = nx.DiGraph()
    for key in targets:
        lib_type = (libraries.get(key) or {}).get('type', 'unknown')
        G.add_node(key, type=lib_type)
    for key, entry in targets.items():
        for dep_name, dep_version in ((entry or {}).get('dependencies') or {}).items():
            dep_key = f"{dep_name}/{dep_version}"
            if dep_key not in G:
                G.add_node(dep_key, type=(libraries.get(dep_key) or {}).get('type', 'unknown'))
            G.add_edge(key, dep_key)
    return G


def render_dependency_graph(deps, out_path):
    """Render the dependency graph to a PNG (requires networkx + matplotlib).

    Returns the written path, or None when the visualization stack is missing
    or the graph is empty.
    """
    if not VIZ_AVAILABLE:
        return None
    G = build_dependency_graph(deps)
    if len(G.nodes) == 0:
        return None

    colors = {'project': '#5865F2', 'package': '#57F287', 'runtimepack': '#FEE75C'}
    try:
        plt.figure(figsize=(14, 9))
        pos = nx.spring_layout(G, k=2.5, iterations=60, seed=42)
        node_colors = [colors.get(G.nodes[n].get('type'), '#99AAB5') for n in G.nodes()]
        nx.draw(G, pos, with_labels=True, node_color=node_colors, node_size=2200,
                font_size=7, font_weight='bold', arrows=True, edge_color='#72767D',
                arrowsize=12, edgecolors='#2C2F33', linewidths=1.5)
        plt.title("Runtime Library Dependencies", fontsize=14, fontweight='bold')
        plt.axis('off')
        plt.savefig(out_path, dpi=150, bbox_inches='tight')
    finally:
        plt.close()
    return out_path

# endregion Visualization
